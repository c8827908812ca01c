from importlib import import_module

__all__ = [
    "SpotsClient",
    "SpotFetchError",
    "SpotNotFoundError",
    "ViewRegistry",
    "SpotSyncController",
    "CollectionSyncController",
    "ForecastModelSelection",
]

_LAZY_EXPORTS = {
    "SpotsClient": ("services.spots_client", "SpotsClient"),
    "SpotFetchError": ("services.spots_client", "SpotFetchError"),
    "SpotNotFoundError": ("services.spots_client", "SpotNotFoundError"),
    "ViewRegistry": ("services.spot_sync.registry", "ViewRegistry"),
    "SpotSyncController": ("services.spot_sync.detail", "SpotSyncController"),
    "CollectionSyncController": ("services.spot_sync.collection", "CollectionSyncController"),
    "ForecastModelSelection": ("services.preferences", "ForecastModelSelection"),
}


def __getattr__(name):
    if name not in _LAZY_EXPORTS:
        raise AttributeError(f"module 'services' has no attribute {name!r}")

    module_name, attr_name = _LAZY_EXPORTS[name]
    module = import_module(module_name)
    value = getattr(module, attr_name)
    globals()[name] = value
    return value
