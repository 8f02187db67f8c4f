import argparse
import getpass
import os
import sys

import requests

# CONFIGURATION
BASE_URL = os.getenv("CLINIC_URL", "http://127.0.0.1:5000")


def login(session, base_url, username, password):
    """Log in with the form endpoint. Returns True when a session was opened."""
    response = session.post(
        f"{base_url}/login",
        data={"username": username, "password": password},
        timeout=30,
    )
    response.raise_for_status()
    # A failed login renders the login page again instead of redirecting
    return not response.url.rstrip("/").endswith("/login")


def upload(session, base_url, path):
    with open(path, "rb") as fh:
        response = session.post(
            f"{base_url}/importar-pacientes",
            files={"archivo": (os.path.basename(path), fh)},
            timeout=120,
        )
    return response


def main(argv=None):
    parser = argparse.ArgumentParser(description="Upload a patient spreadsheet")
    parser.add_argument("file", help=".xlsx or .csv with one patient per row")
    parser.add_argument("--url", default=BASE_URL)
    parser.add_argument("--username", default=os.getenv("CLINIC_USERNAME"))
    args = parser.parse_args(argv)

    if not os.path.isfile(args.file):
        print(f"❌ File not found: {args.file}")
        return 1

    username = args.username or input("Username: ")
    password = os.getenv("CLINIC_PASSWORD") or getpass.getpass("Password: ")
    base_url = args.url.rstrip("/")

    session = requests.Session()
    try:
        print(f">> Connecting to {base_url}...")
        if not login(session, base_url, username, password):
            print("❌ Authentication failed! Check username/password.")
            return 1

        response = upload(session, base_url, args.file)
    except requests.exceptions.ConnectionError:
        print("❌ Error: the clinic server is not running!")
        return 1

    if response.status_code == 200:
        print(f"✅ Import finished: {args.file}")
        return 0
    if response.status_code == 403:
        print("❌ Access denied: your role cannot import patients.")
    else:
        print(f"⚠️ Import rejected by the server (HTTP {response.status_code}).")
    return 1


if __name__ == "__main__":
    sys.exit(main())
