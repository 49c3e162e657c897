# List groups: generated card groupings for project lists
#
# Components:
#   schema.py       - Data model (ListGroup, Filter, ListStage, User, Card, enums)
#   filters.py      - Filter expression trees, placeholders, evaluation
#   store.py        - SQLite connection and schema
#   stages.py       - Pipeline-stage lookup
#   users.py        - Project member lookup
#   filter_store.py - Filter persistence
#   groups.py       - List group persistence
#   cards.py        - Card persistence and group membership
#   synthesizer.py  - Group listing, generation and reconciliation
#   config.py       - YAML configuration
