#!/usr/bin/env python
"""
Configuration helper for the mailbox verification code poller.
Walks through creating the .env file and checks that the settings load.
"""

import os

from errors import ParseError
from timestamps import parse_timezone

PROJECT_NAME = "mail-code"
BANNER_WIDTH = 64
SETUP_STEPS = 3


def print_header(text):
    """Print a banner naming the tool and the current phase."""
    rule = "-" * BANNER_WIDTH
    print(f"\n{rule}\n{PROJECT_NAME} | {text}\n{rule}\n")


def print_step(step, description):
    """Print a numbered setup step out of the total."""
    print(f"\n({step}/{SETUP_STEPS}) {description}")
    print("~" * (len(description) + 6))


def _ask_timezone(default):
    while True:
        value = input(f"Enter value for TIMEZONE [{default}]: ").strip() or default
        try:
            if parse_timezone(value) is not None:
                return value
        except ParseError as e:
            print(f"❌ {e}")
            continue
        print("❌ TIMEZONE must look like UTC, UTC+08:00 or UTC-05:30")


def create_env_file(example_path=".env.example", env_path=".env"):
    """Create .env file from .env.example."""
    print_step(1, "Creating environment configuration")

    if not os.path.exists(example_path):
        print(f"❌ {example_path} file not found. Make sure you're running this script from the project directory.")
        return False

    if os.path.exists(env_path):
        overwrite = input(f"{env_path} file already exists. Overwrite? (y/n): ").lower() == 'y'
        if not overwrite:
            print(f"Skipping {env_path} file creation.")
            return True

    with open(example_path, "r", encoding="utf-8") as f:
        env_example = f.readlines()

    env_content = []
    for line in env_example:
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            env_content.append(line)
            continue

        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip()

        if key == "TIMEZONE":
            value = _ask_timezone(value or "UTC")
        else:
            user_value = input(f"Enter value for {key} [{value}]: ").strip()
            if user_value:
                value = user_value

        env_content.append(f"{key}={value}")

    with open(env_path, "w", encoding="utf-8") as f:
        f.write("\n".join(env_content) + "\n")

    print(f"✅ {env_path} file created successfully")
    return True


def test_configuration(env_path=".env"):
    """Load the settings and report anything that would stop polling."""
    print_step(2, "Testing configuration")

    from settings import load_settings

    try:
        settings = load_settings(env_path)
    except ParseError as e:
        print(f"❌ Configuration test failed: {e}")
        return False

    if not settings.session_token:
        print("⚠️ MAIL_SESSION_TOKEN not configured. Pass --token when polling.")
    if not settings.account_id:
        print("⚠️ MAIL_ACCOUNT_ID not configured. Pass --account-id when polling.")

    print(f"Timezone for naive timestamps: {settings.timezone}")
    print(f"Polling: {settings.poll.max_attempts} attempts, {settings.poll.retry_delay:g}s apart, "
          f"{settings.poll.recency_window_minutes:g} minute window")
    print("\n✅ Configuration test completed")
    return True


def show_usage_instructions():
    """Show instructions for using the poller."""
    print_step(3, "Usage instructions")

    print("""
How to use the verification code poller:

1. As a Command Line Tool:
   # Wait for the latest code of an account
   mail-code poll --account-id 42

   # Override the timezone of naive timestamps
   mail-code poll --account-id 42 --timezone UTC+08:00

2. As a Web Service:
   mail-code server --port 5000

   Server endpoints:
   - GET /verification-code?accountId=42 - Wait for the latest code
   - GET /health - Show the configured timezone
""")


def main():
    """Main setup function."""
    print_header("mailbox verification code poller setup")

    proceed = input("Do you want to proceed with setup? (y/n): ").lower() == 'y'
    if not proceed:
        print("Setup cancelled.")
        return

    env_ok = create_env_file()
    if not env_ok:
        print("\n⚠️ Failed to create environment configuration. Please resolve the issues and try again.")
        return

    test_ok = test_configuration()
    if not test_ok:
        print("\n⚠️ Configuration test failed. Please check your settings in the .env file.")

    show_usage_instructions()
    print_header("setup complete")


if __name__ == "__main__":
    main()
