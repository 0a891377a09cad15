from .asset import Asset
from .asset_share import AssetShare, make_target_key
from .user import User

__all__ = ["Asset", "AssetShare", "User", "make_target_key"]
