"""Sales pipeline module -- phase enumeration, deal schemas, and the kanban board controller.

Provides the Phase enum (closed, ordered set of pipeline stages), Pydantic
deal schemas, and PipelineBoard, which holds the deal snapshot and applies
drag-and-drop phase moves optimistically with reload-on-failure.
"""
