"""
Generation Broker Services

Services for the generation broker:
- generation: provider adapters, registry and the dual-path dispatcher
- jobs: durable job/status store, polling protocol and worker
- identity: service-account token minting for the video backend
- operations: bounded long-running operation polling
- api: FastAPI action endpoint
"""
