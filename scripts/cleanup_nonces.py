"""
Delete expired SIWE nonces. Meant to run from cron or a scheduled job.
"""
from siwe_auth.core.config import get_settings
from siwe_auth.core.deps import get_nonce_store
from siwe_auth.core.observability import configure_logging
from siwe_auth.services.cleanup import cleanup_nonce_table


def main() -> None:
    settings = get_settings()
    configure_logging(settings.log_level, settings.log_json)

    removed = cleanup_nonce_table(get_nonce_store())
    if removed:
        print(f"Expired nonces cleaned: {removed}")
    else:
        print("No expired nonces found to clean.")


if __name__ == "__main__":
    main()
