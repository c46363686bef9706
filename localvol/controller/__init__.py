"""LocalStorageClass reconciler."""
