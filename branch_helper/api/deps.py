from branch_helper.services.config_service import HelperConfig, config_service


def get_config_snapshot() -> HelperConfig | None:
    # A fresh snapshot per request; nothing holds config across requests.
    return config_service.try_load()
