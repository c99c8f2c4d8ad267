"""
Warden - temporary sanction enforcement for Discord guilds.

Warden lets moderators issue time-bounded sanctions (temporary bans, mutes,
image mutes, reaction mutes and jail) and lifts them automatically once the
duration runs out, even across restarts.

Core Components:

- **Duration parsing**: single-unit tokens such as ``10m`` or ``7d`` with
  per-kind bounds
- **Sanction store**: SQLite-backed records of every active sanction
- **Authorization guard**: self-target, conflict, native permission and
  overlay grant checks before anything touches Discord
- **Applier**: performs the punishment, persists it and opens a case
- **Reconciliation**: background polling loop that reverses expired
  sanctions exactly once and tolerates drift

Usage:
    from warden.main import main
    main()
"""
