"""Document models — accounts, ministries, assets."""
