"""SQLAlchemy persistence for the SQL event store."""
