# Automation rule engine: detect card changes, match rules, run actions
#
# Components:
#   rules.py    - Trigger/action catalog and the Automation record
#   registry.py - User automations (CRUD, YAML load/dump)
#   differ.py   - Snapshot diff → change events
#   matcher.py  - Change event → matching automations
#   executor.py - Ordered action application against the store
#   engine.py   - Store subscription, reentrancy guard, cycle orchestration
