"""ERD Pets: entity relationship diagrams kept inside the SQL they describe."""
