"""Realtime mirror — keeps a user's rows of one table in sync with the Supabase change feed."""

from typing import Callable

MIRRORED_TABLES = {
    "assessments": "user_id",
    "chat_sessions": "user_id",
    "reports": "user_id",
    "diet_plans": "user_id",
    "profiles": "id",
}


def normalize_change(payload: dict) -> tuple[str, dict, dict]:
    """Return (event_type, new_row, old_row) for either change payload shape."""
    if "eventType" in payload:
        return payload["eventType"], payload.get("new") or {}, payload.get("old") or {}
    data = payload.get("data", payload)
    return data.get("type", ""), data.get("record") or {}, data.get("old_record") or {}


class RealtimeMirror:
    """Ordered in-memory copy of ``table`` rows where ``column = user_id``.

    The change feed is subscribed before the snapshot is read; events that arrive
    while the snapshot is in flight are buffered and replayed on top of it.
    """

    def __init__(self, table: str, user_id: str, column: str = "user_id"):
        self.table = table
        self.user_id = user_id
        self.column = column
        self.data: list[dict] = []
        self.loading = True
        self.error: Exception | None = None
        self.connected = False
        self._pending: list[dict] | None = []
        self._client = None
        self._channel = None
        self._listeners: list[Callable[["RealtimeMirror"], None]] = []

    @property
    def channel_name(self) -> str:
        return f"{self.table}_changes"

    @property
    def filter(self) -> str:
        return f"{self.column}=eq.{self.user_id}"

    def state(self) -> dict:
        return {
            "data": list(self.data),
            "loading": self.loading,
            "error": str(self.error) if self.error else None,
        }

    def add_listener(self, callback: Callable[["RealtimeMirror"], None]) -> None:
        self._listeners.append(callback)

    def _notify(self) -> None:
        for callback in self._listeners:
            callback(self)

    def _index_of(self, row_id) -> int | None:
        for i, row in enumerate(self.data):
            if row.get("id") == row_id:
                return i
        return None

    def apply(self, change: dict) -> None:
        if self._pending is not None:
            self._pending.append(change)
            return
        self._apply(change)
        self._notify()

    def _apply(self, change: dict) -> None:
        event_type, new, old = normalize_change(change)

        if event_type == "INSERT":
            index = self._index_of(new.get("id"))
            if index is None:
                self.data.append(new)
            else:
                self.data[index] = new
        elif event_type == "UPDATE":
            index = self._index_of(new.get("id"))
            if index is not None:
                self.data[index] = new
        elif event_type == "DELETE":
            self.data = [row for row in self.data if row.get("id") != old.get("id")]

    def load_snapshot(self, rows: list[dict]) -> None:
        self.data = list(rows or [])
        pending, self._pending = self._pending or [], None
        for change in pending:
            self._apply(change)
        self.loading = False
        self._notify()

    def fail(self, error: Exception) -> None:
        self.error = error
        self.data = []
        self._pending = None
        self.loading = False
        self._notify()

    def _on_status(self, status, err=None) -> None:
        status = getattr(status, "value", status)
        self.connected = status == "SUBSCRIBED"
        if not self.connected:
            print(f"[Realtime] {self.channel_name} ({self.filter}) status {status}: {err or ''}")

    async def start(self, client) -> None:
        self._client = client
        self._channel = client.channel(self.channel_name)
        self._channel.on_postgres_changes(
            "*",
            schema="public",
            table=self.table,
            filter=self.filter,
            callback=self.apply,
        )
        await self._channel.subscribe(self._on_status)

        try:
            response = await client.table(self.table).select("*").eq(self.column, self.user_id).execute()
        except Exception as e:
            print(f"[Realtime] Initial fetch of {self.table} failed: {e}")
            self.fail(e)
            return
        self.load_snapshot(response.data)

    async def stop(self) -> None:
        """Leave the channel and let the client close its socket once no channels remain."""
        if self._channel is not None:
            await self._client.remove_channel(self._channel)
            self._channel = None
        self._client = None
        self.connected = False
