import os
import socket
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from core.config import get_settings


def check_port(host, port, service_name):
    try:
        with socket.create_connection((host, port), timeout=2):
            print(f"✅ {service_name} is running on {host}:{port}")
            return True
    except (ConnectionRefusedError, socket.timeout, OSError):
        print(f"❌ {service_name} is NOT running on {host}:{port}")
        return False


def mongo_address(url: str):
    hostport = url.split("://", 1)[-1].split("/", 1)[0].split("@")[-1]
    host, _, port = hostport.partition(":")
    return host or "localhost", int(port or 27017)


def main():
    settings = get_settings()
    print("Checking services...")
    redis_ok = check_port(settings.redis.host, settings.redis.port, "Redis")
    mongo_ok = check_port(*mongo_address(settings.mongo.url), "MongoDB")

    if not redis_ok or not mongo_ok:
        sys.exit(1)
    sys.exit(0)


if __name__ == "__main__":
    main()
