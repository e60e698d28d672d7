"""Core data types: semantic versions, package descriptors, installed packages."""
