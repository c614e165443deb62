"""Scope Policy: which categories and assets a restore includes."""

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from school_archive.archive.models import TableDef


class ScopePolicy(BaseModel):
    """Four independent restore toggles.

    Wire shape is camelCase (``clearExisting``, ``importUsers``,
    ``importProgress``, ``importAssets``).  Structural collections are
    always in scope; users and progress records are opt-out.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    clear_existing: bool = False
    import_users: bool = True
    import_progress: bool = True
    import_assets: bool = True

    @classmethod
    def from_form(cls, form: Mapping[str, Any]) -> "ScopePolicy":
        """Decode toggles sent as multipart form strings.

        ``clearExisting`` is on only when exactly ``"true"``; the import
        toggles are on unless exactly ``"false"``.
        """
        return cls(
            clear_existing=form.get("clearExisting") == "true",
            import_users=form.get("importUsers") != "false",
            import_progress=form.get("importProgress") != "false",
            import_assets=form.get("importAssets") != "false",
        )

    def includes(self, table_def: TableDef) -> bool:
        if table_def.scope == "users":
            return self.import_users
        if table_def.scope == "progress":
            return self.import_progress
        return True
