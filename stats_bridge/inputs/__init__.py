"""stats_bridge.inputs package

Adapters that ingest events from external sources and translate them into
records for the Firestore writer.

Modules
-------
* discord – Gateway listener for ready, message and member join/leave events.
"""
