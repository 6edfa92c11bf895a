"""Example: Using dify_sync as an SDK.

This example demonstrates how to use dify_sync programmatically
as a Python library (SDK) rather than via the CLI.
"""

import os
from pathlib import Path

from dify_sync import (
    DatasetSpec,
    DatasetSync,
    Reporter,
    Settings,
    load_sync_config,
    sync_datasets,
)


def example_simple_usage():
    """Simplest usage - read dify-settings/sync.yaml and sync everything."""
    print("=" * 60)
    print("Example 1: Simple Usage")
    print("=" * 60)

    results = sync_datasets()
    print(f"Synced {len(results)} dataset(s)")


def example_with_environment_config():
    """Load configuration from environment variables."""
    print("\n" + "=" * 60)
    print("Example 2: Environment Configuration")
    print("=" * 60)

    os.environ["DIFY_API_URL"] = "http://localhost/v1"
    os.environ["DIFY_BATCH_SIZE"] = "5"
    os.environ["DIFY_INDEXING_TIMEOUT"] = "300"

    settings = Settings()
    print(f"Loaded config: url={settings.api_url}, batch_size={settings.batch_size}")

    sync_datasets(config=settings)


def example_headless_mode():
    """Use silent reporter for headless/server mode."""
    print("\n" + "=" * 60)
    print("Example 3: Headless Mode (No Terminal Output)")
    print("=" * 60)

    reporter = Reporter(silent=True)
    results = sync_datasets(reporter=reporter)

    for result in results:
        for error in result.errors:
            print(f"{result.dataset_label}: {error.filename} ({error.action.value}) {error.error}")


def example_orchestrator_api():
    """Build dataset specs in code and drive the orchestrator directly."""
    print("\n" + "=" * 60)
    print("Example 4: Orchestrator API (More Control)")
    print("=" * 60)

    settings = Settings(batch_size=20, record_fingerprints=True)
    datasets = [
        DatasetSpec(path=Path("docs/handbook"), dataset_name="handbook", create_if_missing=True),
        DatasetSpec(path=Path("docs/faq"), dataset_id="62e28aa6-2b35-4cb9-9516-4ee934084c84"),
    ]

    with DatasetSync(settings) as orchestrator:
        # Preview first, then apply
        for plan in orchestrator.plan(datasets, reporter=Reporter(silent=True)):
            print(f"{plan.dataset_label}: {len(plan.entries)} planned entries")
        orchestrator.run(datasets)


def example_dry_run():
    """Compare local folders with their datasets without touching anything."""
    print("\n" + "=" * 60)
    print("Example 5: Dry Run")
    print("=" * 60)

    settings = Settings()
    sync_config = load_sync_config(settings.sync_config_file)

    with DatasetSync(settings) as orchestrator:
        for plan in orchestrator.plan(sync_config.datasets):
            for entry in plan.entries:
                print(f"  {entry.action.value:6} {entry.filename}")


if __name__ == "__main__":
    # Uncomment the example you want to run:

    # example_simple_usage()
    # example_with_environment_config()
    # example_headless_mode()
    # example_orchestrator_api()
    example_dry_run()
