"""
Dashboard Scenario: Live Permission Changes Walkthrough
=======================================================

This script walks through RouteGate using the bundled example seed.  All
users and passwords are synthetic.

Steps demonstrated:
  1. Bootstrap from the YAML seed
  2. Log users in and open their navigation views
  3. Disable a route and watch every open view refresh
  4. Grant a role access to a route
  5. Show the protected administrator and referential integrity guards
  6. Print the access matrix for administrative review

Usage:
    python -m examples.dashboard_scenario
    # or: python examples/dashboard_scenario.py
"""

from __future__ import annotations

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

# Ensure the project root is on the path
sys.path.insert(0, str(Path(__file__).parent.parent))

from routegate.bootstrap import bootstrap
from routegate.config import DEFAULT_SEED, load_seed_from_yaml
from routegate.errors import ProtectedIdentityError, ReferentialConflictError
from routegate.models import AuthSession


def _banner(text: str) -> None:
    print(f"\n{'=' * 60}")
    print(f"  {text}")
    print(f"{'=' * 60}\n")


def main() -> None:
    _banner("RouteGate Scenario: Live Permission Changes")

    # ------------------------------------------------------------------
    # Step 1: Bootstrap
    # ------------------------------------------------------------------
    _banner("Step 1: Bootstrap From Seed")

    sample_yaml = Path(__file__).parent / "dashboard_seed.yaml"
    seed = load_seed_from_yaml(sample_yaml) if sample_yaml.exists() else DEFAULT_SEED
    acl = bootstrap(seed)
    print(f"Roles:  {[r.role_id for r in acl.roles.list_roles()]}")
    print(f"Routes: {[r.path for r in acl.routes.list_routes()]}")

    # ------------------------------------------------------------------
    # Step 2: Log in and open navigation
    # ------------------------------------------------------------------
    _banner("Step 2: Log In And Open Navigation")

    admin = next(u for u in acl.users.list_users() if u.is_protected)
    analyst = acl.users.find_by_email("analyst@example.com")
    if analyst is None:
        analyst = acl.users.create_user("analyst@example.com", "change-me-too", "ANALYST")

    expires = datetime.now(timezone.utc) + timedelta(hours=8)
    sessions = {
        "admin": AuthSession(user=admin, expires=expires),
        "analyst": AuthSession(user=analyst, expires=expires),
    }
    views = {
        name: acl.open_navigation(session.effective_role())
        for name, session in sessions.items()
    }
    for name, view in views.items():
        print(f"{name:>8}: {view.paths()}")

    # ------------------------------------------------------------------
    # Step 3: Disable a route
    # ------------------------------------------------------------------
    _banner("Step 3: Disable /dashboard For Everyone")

    dashboard = acl.routes.find_by_path("/dashboard")
    acl.routes.set_enabled(dashboard.id, False)
    for name, view in views.items():
        print(f"{name:>8}: {view.paths()}  (refreshes: {view.refresh_count})")
    acl.routes.set_enabled(dashboard.id, True)

    # ------------------------------------------------------------------
    # Step 4: Grant access
    # ------------------------------------------------------------------
    _banner("Step 4: Grant ANALYST Real-Time Metrics")

    realtime = acl.routes.find_by_path("/metrics/real-time")
    acl.routes.update_route(
        realtime.id, {"allowed_roles": [*realtime.allowed_roles, "ANALYST"]}
    )
    print(f"analyst can open /metrics/real-time: "
          f"{acl.can_access('/metrics/real-time', 'ANALYST')}")
    print(f" analyst: {views['analyst'].paths()}")

    # ------------------------------------------------------------------
    # Step 5: Guards
    # ------------------------------------------------------------------
    _banner("Step 5: Guards")

    try:
        acl.users.set_enabled(admin.id, False)
    except ProtectedIdentityError as e:
        print(f"Rejected: {e}")

    try:
        acl.roles.delete_role("ANALYST")
    except ReferentialConflictError as e:
        print(f"Rejected: {e}")

    # ------------------------------------------------------------------
    # Step 6: Access matrix
    # ------------------------------------------------------------------
    _banner("Step 6: Access Matrix")

    for role, paths in acl.evaluator.access_matrix().items():
        print(f"{role:>10}: {list(paths)}")

    for view in views.values():
        view.close()
    print(f"\nOpen subscriptions after teardown: {len(acl.channel)}")


if __name__ == "__main__":
    main()
