"""Autopilot Device Naming Module.

This module assigns display names to Windows Autopilot device identities:
- Read a CSV or Excel file pairing serial numbers with desired names
- Match each serial against the Autopilot directory
- Refuse duplicate names and, unless forced, overwriting existing names
- Apply the remaining names and write a per-device report

Architecture: Clean Architecture with Hexagonal (Ports & Adapters)
"""
