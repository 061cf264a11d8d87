"""Sync engine: resume decisions, pagination, and per-unit orchestration.

Modules:
    resume    — Resume token, ResumeState, and the ResumeCoordinator decision table
    paginator — Flatten getmeasure groups and walk pages forward in time
    session   — SyncSession: one unit at a time, pages into the sink
    units     — Build sync units from discovered stations
    runner    — Wire settings, credentials, client and sink for one run
"""
