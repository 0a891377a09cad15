"""assetflow: visibility and approval engine for a digital-asset CMS."""

__version__ = "1.0.0"
