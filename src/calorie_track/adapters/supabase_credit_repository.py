"""Supabase-backed credit store."""

from dataclasses import dataclass
from datetime import date

from supabase import Client

from calorie_track.domain.credits import CreditRecord
from calorie_track.services.credits import CreditStore

_TABLE = "ai_credit_usage"
_INCREMENT_FUNCTION = "increment_ai_credit_usage"


@dataclass
class SupabaseCreditRepository(CreditStore):
    """Durable credit store; increments run inside a single SQL function."""

    client: Client

    def get_count(self, user_id: str, day: date) -> int:
        """Return the stored count, creating a zero row when missing."""
        response = (
            self.client.table(_TABLE)
            .select("count")
            .eq("user_id", user_id)
            .eq("day", day.isoformat())
            .limit(1)
            .execute()
        )
        if response.data:
            return int(response.data[0]["count"])
        self.client.table(_TABLE).upsert(
            {"user_id": user_id, "day": day.isoformat(), "count": 0},
            on_conflict="user_id,day",
            ignore_duplicates=True,
        ).execute()
        return 0

    def increment(self, user_id: str, day: date) -> int:
        """Increment via RPC so concurrent writers cannot lose updates."""
        response = self.client.rpc(
            _INCREMENT_FUNCTION, {"p_user_id": user_id, "p_day": day.isoformat()}
        ).execute()
        data = response.data
        if isinstance(data, list):
            if not data:
                raise RuntimeError("Supabase returned no credit count")
            data = data[0]
        if isinstance(data, dict):
            data = data.get(_INCREMENT_FUNCTION, data.get("count"))
        if data is None:
            raise RuntimeError("Supabase returned no credit count")
        return int(data)

    def delete_before(self, day: date) -> int:
        """Delete rows for days before the given day."""
        response = (
            self.client.table(_TABLE).delete().lt("day", day.isoformat()).execute()
        )
        return len(response.data or [])

    def list_records(self) -> list[CreditRecord]:
        """Return all rows ordered by day."""
        response = (
            self.client.table(_TABLE)
            .select("user_id, day, count")
            .order("day", desc=False)
            .execute()
        )
        return [
            CreditRecord(
                user_id=str(row["user_id"]),
                day=date.fromisoformat(str(row["day"])),
                count=int(row["count"]),
            )
            for row in response.data or []
        ]
