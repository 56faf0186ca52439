from siwe_auth.core.config import get_settings
from siwe_auth.core.observability import configure_logging
from siwe_auth.db.init_db import setup_nonce_table
from siwe_auth.db.session import get_engine


def main() -> None:
    settings = get_settings()
    configure_logging(settings.log_level, settings.log_json)

    if setup_nonce_table(get_engine()):
        print("✅ Created nonces table.")
    else:
        print("nonces table already exists.")


if __name__ == "__main__":
    main()
