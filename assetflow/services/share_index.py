"""
ShareIndex

Lookup structure over the explicit share grants attached to one asset.
Grants are de-duplicated on (target_type, target); insertion order of the
first occurrence is kept.
"""

from collections.abc import Iterable, Iterator

from assetflow.constants.assets import ShareTargetType
from assetflow.constants.roles import UserRole
from assetflow.schemas.snapshots import AssetSnapshot, ShareGrant


class ShareIndex:
    __slots__ = ("_grants", "_roles", "_users")

    def __init__(self, grants: Iterable[ShareGrant] = ()) -> None:
        unique: dict[tuple[ShareTargetType, str], ShareGrant] = {}
        for grant in grants:
            unique.setdefault(grant.key, grant)
        self._grants: tuple[ShareGrant, ...] = tuple(unique.values())
        self._roles: frozenset[UserRole] = frozenset(
            g.target_role for g in self._grants if g.target_type == ShareTargetType.ROLE
        )
        self._users: frozenset[str] = frozenset(
            g.target_user_id for g in self._grants if g.target_type == ShareTargetType.USER
        )

    @classmethod
    def from_asset(cls, asset: AssetSnapshot) -> "ShareIndex":
        """Index the grants of *asset*, ignoring grants that belong to other assets."""
        return cls(grant for grant in asset.shares if grant.asset_id == asset.id)

    @property
    def grants(self) -> tuple[ShareGrant, ...]:
        return self._grants

    def has_role_grant(self, role: UserRole | None) -> bool:
        return role is not None and role in self._roles

    def has_user_grant(self, user_id: str | None) -> bool:
        return user_id is not None and user_id in self._users

    def with_grants(self, grants: Iterable[ShareGrant]) -> tuple["ShareIndex", tuple[ShareGrant, ...]]:
        """
        Return a new index extended by *grants* and the grants that were
        actually new. Grants already present are skipped.
        """
        added: dict[tuple[ShareTargetType, str], ShareGrant] = {}
        for grant in grants:
            if grant not in self and grant.key not in added:
                added[grant.key] = grant
        new_added = tuple(added.values())
        return ShareIndex(self._grants + new_added), new_added

    def without(self, grant: ShareGrant) -> "ShareIndex":
        return ShareIndex(g for g in self._grants if g.key != grant.key)

    def __contains__(self, grant: object) -> bool:
        if not isinstance(grant, ShareGrant):
            return False
        return any(g.key == grant.key for g in self._grants)

    def __iter__(self) -> Iterator[ShareGrant]:
        return iter(self._grants)

    def __len__(self) -> int:
        return len(self._grants)

    def __repr__(self) -> str:
        return f"<ShareIndex(roles={sorted(r.value for r in self._roles)}, users={sorted(self._users)})>"
