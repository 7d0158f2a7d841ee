#!/usr/bin/env python3
"""Fleet Device Onboarding CLI.

This module provides a command-line interface for onboarding telematics
devices into a MyGeotab database (tenant). A desired device list (CSV or
Excel) is reconciled against the tenant's inventory and the reseller's
MyAdmin device registry: existing devices are updated, unknown devices are
added and configured, and devices owned by another database are skipped.

Architecture:
    - SessionManager / AdminSessionManager authenticate both APIs
    - MyGeotabClient and MyAdminClient are the shared JSON-RPC layer
    - OnboardDevicesUseCase composes the parser, the adapters and the
      ReconciliationEngine
    - ProvisionTenantUseCase creates a database and its administrator

Environment Variables Required:
    - MYGEOTAB_USERNAME / MYGEOTAB_PASSWORD: MyGeotab login
    - MYGEOTAB_DATABASE: Target database (or --database)
    - RESELLER_ERP_ACCOUNT_ID: Registry account (or --account)
    - MYADMIN_USERNAME / MYADMIN_PASSWORD: Optional, default to the MyGeotab login

Example Usage:
    $ python main.py validate --devices devices.csv
    $ python main.py onboard --devices devices.csv --dry-run
    $ python main.py onboard --devices devices.xlsx --report outcome.xlsx
    $ python main.py provision --database-name acme_fleet --company-name "Acme" ...

Exit codes:
    0  every record succeeded (or was only planned/validated)
    1  at least one record failed, or the input was invalid
    2  fatal error (configuration, authentication, snapshot)
"""
import argparse
import asyncio
import json
import logging
import signal
import sys
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# Local imports
from src.fleet_onboard.api import (
    AdminSessionManager,
    FleetOnboardError,
    MyAdminClient,
    MyGeotabClient,
    SessionManager,
)
from src.fleet_onboard.config import OnboardConfig
from src.fleet_onboard.reconcile.adapters import (
    DeviceListParser,
    MyAdminRegistryAPI,
    MyGeotabDeviceAPI,
    MyGeotabProvisioningAPI,
    OutcomeReportGenerator,
)
from src.fleet_onboard.reconcile.domain import TenantProvisionRequest
from src.fleet_onboard.reconcile.use_cases import (
    OnboardDevicesUseCase,
    ProvisionTenantUseCase,
)

logger = logging.getLogger("fleet_onboard.main")

EXIT_OK = 0
EXIT_FAILURES = 1
EXIT_FATAL = 2


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )


def print_banner(title: str) -> None:
    print("\n" + "=" * 60)
    print(title)
    print("=" * 60)


def read_device_list(path: str) -> bytes:
    file_path = Path(path)
    if not file_path.is_file():
        raise FileNotFoundError(f"Device list not found: {path}")
    return file_path.read_bytes()


# ============================================
# validate
# ============================================

def run_validate(args: argparse.Namespace) -> int:
    """Parse and validate a device list without contacting any API."""
    parser = DeviceListParser()
    try:
        devices = parser.parse(read_device_list(args.devices), filename=args.devices)
    except (OSError, ValueError) as e:
        print(f"[Main] Could not read device list: {e}")
        return EXIT_FAILURES

    result = parser.validate(devices)

    print_banner("DEVICE LIST VALIDATION")
    print(f"Records: {len(devices)}")
    for warning in result.warnings:
        print(f"  WARNING {warning}")
    for error in result.errors:
        print(f"  ERROR   {error}")

    if result.is_valid:
        print("\n✓ Device list is valid")
        return EXIT_OK
    print(f"\n✗ {len(result.errors)} validation error(s)")
    return EXIT_FAILURES


# ============================================
# onboard
# ============================================

def print_outcomes(result) -> None:
    if result.dry_run:
        print(f"\n{'Serial':<20} {'Name':<30} {'Planned action':<15}")
        print("-" * 70)
        for desired, action in result.plan:
            print(f"{desired.serial_number:<20} {desired.display_name[:28]:<30} {action.value:<15}")
        return

    print(f"\n{'Row':<6} {'Serial':<20} {'Result':<12} Reason")
    print("-" * 100)
    for outcome in result.outcomes:
        row = outcome.row_number if outcome.row_number is not None else ""
        print(f"{row!s:<6} {outcome.serial_number:<20} {outcome.label:<12} {outcome.reason}")

    print("\n" + "-" * 100)
    print("By verdict:", {k: v for k, v in result.counts.items() if v})


async def run_onboard(args: argparse.Namespace, config: OnboardConfig) -> int:
    """Run (or plan) the onboarding of a device list into one database."""
    config.require(registry=True, database=True)

    try:
        content = read_device_list(args.devices)
    except OSError as e:
        print(f"[Main] Could not read device list: {e}")
        return EXIT_FAILURES

    session = SessionManager(
        database=config.database,
        user_name=config.mygeotab_username,
        password=config.mygeotab_password,
        server=config.mygeotab_server,
    )
    admin_session = AdminSessionManager(
        user_name=config.myadmin_username,
        password=config.myadmin_password,
        url=config.myadmin_url,
    )

    async with MyGeotabClient(session) as geotab, MyAdminClient(admin_session) as admin:
        use_case = OnboardDevicesUseCase(
            parser=DeviceListParser(),
            device_api=MyGeotabDeviceAPI(geotab),
            registry_api=MyAdminRegistryAPI(admin, config.reseller_account_id),
            max_concurrent=config.max_concurrent,
        )

        # Ctrl+C stops dispatching new records; in-flight ones finish
        loop = asyncio.get_running_loop()
        try:
            loop.add_signal_handler(signal.SIGINT, use_case.cancel)
        except NotImplementedError:
            logger.debug("Signal handlers not supported, Ctrl+C will abort the run")

        print_banner(
            f"{'PLANNING' if args.dry_run else 'ONBOARDING'} DEVICES INTO '{config.database}'"
        )
        try:
            result = await use_case.execute(content, filename=args.devices, dry_run=args.dry_run)
        except ValueError as e:
            print(f"[Main] Could not read device list: {e}")
            return EXIT_FAILURES

    if result.validation and not result.validation.is_valid:
        for error in result.validation.errors:
            print(f"  ERROR {error}")
        return EXIT_FAILURES

    if result.error:
        print(f"[Main] Run aborted: {result.error}")
        return EXIT_FATAL

    print_outcomes(result)

    context = {
        "tenant": result.tenant_name,
        "device_list": args.devices,
        "duration_seconds": f"{result.duration_seconds:.1f}",
    }
    generator = OutcomeReportGenerator()
    if args.json:
        payload = result.to_dict()
        if not result.dry_run:
            payload["report"] = generator.generate(use_case.reporter, **context)
        Path(args.json).write_text(json.dumps(payload, indent=2, default=str))
        print(f"[Main] JSON report saved to {args.json}")
    if args.report and not result.dry_run:
        Path(args.report).write_bytes(generator.generate_excel(use_case.reporter, **context))
        print(f"[Main] Excel report saved to {args.report}")

    print(f"\n[Main] Completed in {result.duration_seconds:.1f} seconds")
    return EXIT_OK if result.success else EXIT_FAILURES


# ============================================
# provision
# ============================================

async def run_provision(args: argparse.Namespace, config: OnboardConfig) -> int:
    """Create a database and its administrator user."""
    config.require(registry=False, database=False)

    request = TenantProvisionRequest(
        database_name=args.database_name,
        company_name=args.company_name,
        admin_email=args.admin_email,
        admin_first_name=args.admin_first_name,
        admin_last_name=args.admin_last_name,
        admin_password=args.admin_password,
        phone_number=args.phone_number,
        reseller_name=args.reseller_name,
        reseller_erp_account_id=args.reseller_erp_account_id or config.reseller_account_id or "",
        time_zone_id=args.time_zone,
        fleet_size=args.fleet_size,
        sign_up_for_news=args.sign_up_for_news,
        comments=args.comments,
    )

    session = SessionManager(
        database="",
        user_name=config.mygeotab_username,
        password=config.mygeotab_password,
        server=config.mygeotab_server,
    )

    print_banner(f"PROVISIONING DATABASE '{request.database_name}'")
    async with MyGeotabClient(session) as client:
        result = await ProvisionTenantUseCase(MyGeotabProvisioningAPI(client)).execute(request)

    if result.success:
        print(f"✓ Database created at '{result.path}' with administrator '{request.admin_email}'")
        return EXIT_OK

    for error in result.errors:
        print(f"  ERROR {error}")
    return EXIT_FAILURES


# ============================================
# Entry point
# ============================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Onboard telematics devices into MyGeotab databases",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py validate --devices devices.csv
  python main.py onboard --devices devices.csv --database acme_fleet --dry-run
  python main.py onboard --devices devices.xlsx --report outcome.xlsx --json outcome.json
  python main.py provision --database-name acme_fleet --company-name Acme ...
        """
    )
    parser.add_argument(
        "--log-level",
        type=str,
        metavar="LEVEL",
        help="Logging level (default: LOG_LEVEL or INFO)"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # validate
    validate = subparsers.add_parser("validate", help="Validate a device list offline")
    validate.add_argument("--devices", required=True, metavar="FILE", help="CSV or Excel device list")

    # onboard
    onboard = subparsers.add_parser("onboard", help="Reconcile a device list into a database")
    onboard.add_argument("--devices", required=True, metavar="FILE", help="CSV or Excel device list")

    target_group = onboard.add_argument_group("Target")
    target_group.add_argument("--database", metavar="NAME", help="Database (default: MYGEOTAB_DATABASE)")
    target_group.add_argument("--server", metavar="HOST", help="MyGeotab server (default: MYGEOTAB_SERVER)")
    target_group.add_argument(
        "--account",
        metavar="ID",
        help="Reseller account for the device registry (default: RESELLER_ERP_ACCOUNT_ID)"
    )

    run_group = onboard.add_argument_group("Run Options")
    run_group.add_argument(
        "--max-concurrent",
        type=int,
        metavar="N",
        help="Device records processed concurrently (default: ONBOARD_MAX_CONCURRENT or 1)"
    )
    run_group.add_argument(
        "--dry-run",
        action="store_true",
        help="Only classify each record, change nothing"
    )

    output_group = onboard.add_argument_group("Output Options")
    output_group.add_argument("--report", metavar="FILE", help="Save an Excel outcome report to FILE")
    output_group.add_argument("--json", metavar="FILE", help="Save a JSON outcome report to FILE")

    # provision
    provision = subparsers.add_parser("provision", help="Create a database and its administrator")
    provision.add_argument("--database-name", required=True)
    provision.add_argument("--company-name", required=True)
    provision.add_argument("--admin-email", required=True)
    provision.add_argument("--admin-first-name", required=True)
    provision.add_argument("--admin-last-name", required=True)
    provision.add_argument("--admin-password", required=True)
    provision.add_argument("--phone-number", required=True)
    provision.add_argument("--reseller-name", required=True)
    provision.add_argument(
        "--reseller-erp-account-id",
        help="Reseller ERP account (default: RESELLER_ERP_ACCOUNT_ID)"
    )
    provision.add_argument("--time-zone", required=True, metavar="ID", help="e.g. America/Toronto")
    provision.add_argument("--fleet-size", type=int, default=1)
    provision.add_argument("--comments", default="")
    provision.add_argument("--sign-up-for-news", action="store_true")
    provision.add_argument("--server", metavar="HOST", help="MyGeotab server (default: MYGEOTAB_SERVER)")

    return parser


async def dispatch(args: argparse.Namespace, config: OnboardConfig) -> int:
    if args.command == "onboard":
        return await run_onboard(args, config)
    return await run_provision(args, config)


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = OnboardConfig.from_env().override(
            database=getattr(args, "database", None),
            mygeotab_server=getattr(args, "server", None),
            reseller_account_id=getattr(args, "account", None),
            max_concurrent=getattr(args, "max_concurrent", None),
            log_level=args.log_level,
        )
    except FleetOnboardError as e:
        configure_logging("INFO")
        print(f"[Main] Configuration error: {e.message}")
        return EXIT_FATAL

    configure_logging(config.log_level)

    if args.command == "validate":
        return run_validate(args)

    try:
        return asyncio.run(dispatch(args, config))
    except FleetOnboardError as e:
        logger.error(f"{e.code}: {e.message}")
        print(f"[Main] Fatal error: {e.message}")
        return EXIT_FATAL


if __name__ == "__main__":
    sys.exit(main())
