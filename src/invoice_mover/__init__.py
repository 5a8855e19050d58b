"""Event-driven relocation of uploaded invoice files between S3 folders."""
