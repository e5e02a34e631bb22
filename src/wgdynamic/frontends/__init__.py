"""Frontends - user interfaces for wgdynamic."""
