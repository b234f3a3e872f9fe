"""
Storage - reference persistence for snapshots and saved period plans

The engine never performs I/O itself. These stores implement the load/save
and plan lookup collaborators so the engine can run end to end; apps with
their own storage only need to satisfy the SnapshotStore and PlanStore
protocols.
"""
