from kafka_source.cli import app

app()
