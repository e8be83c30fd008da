"""Project tasks: lifecycle engine, persistence service, analytics and reminder jobs."""
