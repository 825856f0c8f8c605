"""
Moderation configuration, cases and escalation.

- **config_store.py**: cached per-guild ModerationConfig with deep-merge patches
- **escalation.py**: exact-threshold evaluation of escalation ladders
- **case_manager.py**: case recording and warn escalation recommendations
- **notifier.py**: chat platform port and its py-cord adapter
- **log_dispatcher.py**: per-category log routing and case embeds
- **escalation_workflow.py**: warn flow that applies recommended escalations
"""
