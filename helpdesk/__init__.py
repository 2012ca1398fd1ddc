"""
Multi-tenant helpdesk service.

The interesting part lives in `helpdesk.security` (identity, permissions,
tenant scope and guards) and `helpdesk.services` (ticket, department,
organization and hour-bank operations that consume it).
"""
