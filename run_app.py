"""Launch the CastMatch API."""

import sys

import uvicorn

from castmatch.api import create_app
from castmatch.utils.config import get_config
from castmatch.utils.exceptions import ConfigurationError


def main():
    """Launch the API server."""
    try:
        config = get_config()
    except (FileNotFoundError, ValueError, ConfigurationError) as e:
        print(f"Error: could not load configuration: {e}")
        sys.exit(1)

    print("🚀 Launching CastMatch API...")
    print(f"⚙️  Mode: {'light' if config.light_mode else 'heavy'}")
    print("\n" + "=" * 60)
    print(f"Access the API at: http://localhost:{config.port}")
    print("=" * 60 + "\n")

    uvicorn.run(create_app(config), host="0.0.0.0", port=config.port, log_level=config.log_level.lower())


if __name__ == "__main__":
    main()
