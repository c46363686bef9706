"""Identity service."""

import logging
from typing import Optional

from localvol.cli.lib.config import LocalVolConfig
from localvol.csi.messages import PluginCapabilitiesResponse, PluginInfo, ProbeResponse
from localvol.store.base import ResourceStore

LOG = logging.getLogger(__name__)

PLUGIN_CAPABILITIES = ("CONTROLLER_SERVICE", "VOLUME_ACCESSIBILITY_CONSTRAINTS")


class IdentityService:
    def __init__(self, store: ResourceStore, cfg: Optional[LocalVolConfig] = None):
        self.store = store
        self.cfg = cfg or LocalVolConfig()

    def get_plugin_info(self) -> PluginInfo:
        return PluginInfo(name=self.cfg.provisioner, vendor_version=self.cfg.plugin_version)

    def get_plugin_capabilities(self) -> PluginCapabilitiesResponse:
        return PluginCapabilitiesResponse(capabilities=list(PLUGIN_CAPABILITIES))

    def probe(self) -> ProbeResponse:
        ready = self.store.ping()
        if not ready:
            LOG.warning("Probe: resource store is not reachable")
        return ProbeResponse(ready=ready)
