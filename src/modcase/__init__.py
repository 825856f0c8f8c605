"""
Modcase - Moderation case and escalation core for Discord bots

Modcase records moderation actions as numbered cases, keeps a layered
per-guild moderation configuration, and escalates repeat offenders along a
configurable warn ladder (warn -> timeout -> ban).

Core Components:

- **Config Store**: Per-guild moderation configuration, stored as one JSON
  document, deep-merged onto the defaults and cached for 60 seconds
- **Escalation**: Pure threshold evaluation over the guild's warn ladder
- **Case Manager**: Case recording, trigger counting and escalation
  recommendations, with optional per-member serialization
- **Log Dispatcher**: Routing of case embeds and log lines to per-category
  channels with a fallback to the moderation channel
- **Feature Toggles**: Cached moderation/automod switches that degrade to
  disabled while the database is unavailable

Usage:
    from modcase.main import main
    main()  # Opens the database and starts the bot
"""
