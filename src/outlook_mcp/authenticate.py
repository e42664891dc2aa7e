"""
Sign in to Microsoft Graph for use with Outlook MCP.
Run this from a terminal to complete the device-code flow interactively.
"""

import os
import sys
import argparse
from pathlib import Path

from dotenv import load_dotenv


def _parse_arguments(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(description="Authenticate Outlook MCP")
    parser.add_argument(
        "--env-file",
        type=Path,
        default=Path(".env"),
        help="Path to .env file (default: .env)",
    )
    parser.add_argument(
        "--force",
        action="store_true",
        help="Sign in again even if a token is already stored",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    args = _parse_arguments(argv)

    env_file = args.env_file
    if env_file.exists():
        load_dotenv(dotenv_path=env_file)
        print(f"Loaded environment from: {env_file}\n")
    else:
        print(f"Warning: Environment file not found: {env_file}")
        print("Continuing with system environment variables...\n")

    # Import auth module after loading environment
    from outlook_mcp import auth
    from outlook_mcp.exceptions import AuthenticationError

    if not os.getenv("OUTLOOK_MCP_CLIENT_ID"):
        print("Error: OUTLOOK_MCP_CLIENT_ID environment variable is required")
        print("\nPlease set it in your .env file or environment:")
        print("export OUTLOOK_MCP_CLIENT_ID='your-app-id'")
        sys.exit(1)

    print("Outlook MCP Authentication")
    print("==========================\n")

    provider = auth.get_token_provider()
    token = provider.current_token()
    if token is not None and not args.force:
        print(f"Already authenticated (token file: {provider.token_path}).")
        print("Run with --force to sign in again.")
        return

    try:
        flow = auth.start_device_flow()
    except AuthenticationError as e:
        print(f"\n✗ Authentication failed: {e}")
        sys.exit(1)

    print(flow.get("message") or (
        f"Visit {auth.verification_uri(flow)} and enter code {flow['user_code']}"
    ))
    print("\nWaiting for you to finish signing in...")

    result = auth.complete_device_flow(flow)
    if "access_token" not in result:
        error = result.get("error_description") or result.get("error", "Unknown error")
        print(f"\n✗ Authentication failed: {error}")
        sys.exit(1)

    username = (result.get("id_token_claims") or {}).get("preferred_username")
    print("\n✓ Authentication successful!")
    if username:
        print(f"Signed in as: {username}")
    print(f"Tokens saved to: {provider.token_path}")


if __name__ == "__main__":
    main()
