"""SQL Preference Store — PreferenceStore implementation scoped to one client.

Invariants:
    - Every read/write is confined to self.scope (the client id)
    - delete() of a missing key is a no-op
"""

from sqlalchemy import delete

from chatly.infrastructure.database import DatabaseSessionManager
from chatly.models.preference import PreferenceRecord


class SqlPreferenceStore:

    def __init__(self, manager: DatabaseSessionManager, scope: str):
        self.manager = manager
        self.scope = scope

    async def get(self, key: str) -> str | None:
        async with self.manager.session() as db:
            record = await db.get(PreferenceRecord, (self.scope, key))
            return record.value if record else None

    async def set(self, key: str, value: str) -> None:
        async with self.manager.session() as db:
            record = await db.get(PreferenceRecord, (self.scope, key))
            if record is None:
                db.add(PreferenceRecord(scope=self.scope, key=key, value=value))
            else:
                record.value = value
            await db.commit()

    async def delete(self, key: str) -> None:
        async with self.manager.session() as db:
            await db.execute(
                delete(PreferenceRecord).where(
                    PreferenceRecord.scope == self.scope,
                    PreferenceRecord.key == key,
                )
            )
            await db.commit()
