"""HTTP blueprints; registered in teamflow.create_app."""
