"""SQLAlchemy plumbing for the SQL DAO."""
