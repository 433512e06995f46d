SETTINGS = {
    "logging": {"level": "DEBUG"},
    "service": {"port": 3000},
    # Staging runs the batch every 6 hours so approvals can be checked by hand
    "DELETION_BATCH_INTERVAL": 6 * 3600,
}
