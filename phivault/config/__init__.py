from phivault.config.settings import PHISettings, get_phi_settings

__all__ = ["PHISettings", "get_phi_settings"]
