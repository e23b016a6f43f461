#!/usr/bin/env python
"""
Session Ledger Management CLI

Repair and inspection commands for the session ledger and report history.

Usage:
    python manage_ledger.py resync                          # Re-sync every patient
    python manage_ledger.py resync-patient <patient_id>     # Re-sync one patient
    python manage_ledger.py renumber <patient_id>           # Renumber report versions 1..N
    python manage_ledger.py show-versions <patient_id>      # List report versions
"""
import asyncio
import sys

from fastapi import HTTPException

from app.config.config import settings
from app.core.utils import configure_logging
from app.db.session import AsyncSessionLocal as async_session_maker
from app.services.patient_service import PatientService
from app.services.report_version_service import ReportVersionService


async def resync_all():
    """Recompute remaining sessions and status for all patients."""
    async with async_session_maker() as db:
        report = await PatientService(db).resync_all()

    print(f"Patients scanned:    {report.patients_scanned}")
    print(f"Remaining updated:   {report.remaining_updated}")
    print(f"Statuses completed:  {report.statuses_completed}")
    if report.failures:
        print(f"\nFailures ({len(report.failures)}):")
        for patient_id, error in sorted(report.failures.items()):
            print(f"• {patient_id:<20} {error}")


async def resync_patient(patient_id: str):
    """Recompute remaining sessions and status for one patient."""
    async with async_session_maker() as db:
        try:
            synced = await PatientService(db).resync_patient(patient_id)
        except HTTPException as e:
            print(f"Error: {e.detail}")
            return

    print(f"\nPatient: {synced.patient_id}")
    print(f"   Remaining sessions: {synced.remaining_sessions}")
    print(f"   Status: {synced.status.value}")
    if synced.remaining_updated:
        print("   Remaining sessions were out of date and have been corrected.")
    if synced.status_completed:
        print("   Patient has been marked completed.")


async def renumber(patient_id: str):
    """Renumber a patient's report versions."""
    async with async_session_maker() as db:
        result = await ReportVersionService(db).renumber_sequentially(patient_id)

    if result.updated:
        print(
            f"Renumbered {result.updated} of {result.total_versions} versions "
            f"for patient '{patient_id}'."
        )
    else:
        print(f"Versions for patient '{patient_id}' are already numbered 1..{result.total_versions}.")


async def show_versions(patient_id: str):
    """List a patient's report versions, most recent first."""
    async with async_session_maker() as db:
        versions = await ReportVersionService(db).list_versions(patient_id)

    if not versions:
        print(f"No report versions for patient '{patient_id}'.")
        return

    print(f"\n{'Version':<10} {'Created at':<28} {'Created by':<25} {'Restored from':<14}")
    print("-" * 80)
    for v in versions:
        restored = str(v.restored_from) if v.restored_from is not None else ""
        print(
            f"{v.version:<10} {v.created_at.isoformat():<28} "
            f"{v.created_by:<25} {restored:<14}"
        )


def print_usage():
    """Print usage information."""
    print(__doc__)


async def main():
    """Main CLI entry point."""
    configure_logging(settings.LOG_LEVEL)

    if len(sys.argv) < 2:
        print_usage()
        return

    command = sys.argv[1].lower()

    if command == "resync":
        await resync_all()

    elif command in ("resync-patient", "renumber", "show-versions"):
        if len(sys.argv) < 3:
            print("Error: Patient ID required")
            print(f"Usage: python manage_ledger.py {command} <patient_id>")
            return
        patient_id = sys.argv[2]
        if command == "resync-patient":
            await resync_patient(patient_id)
        elif command == "renumber":
            await renumber(patient_id)
        else:
            await show_versions(patient_id)

    else:
        print(f"Unknown command: {command}")
        print_usage()


if __name__ == "__main__":
    asyncio.run(main())
