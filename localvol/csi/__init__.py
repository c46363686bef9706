"""Provisioning protocol services (controller and identity)."""
