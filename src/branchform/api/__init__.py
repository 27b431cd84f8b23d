"""http api for branchform."""
