"""
layergen - layered application code generator.

Turns JSON class specifications into Clean Architecture Python modules
(domain, application, infrastructure, presentation) plus pytest
scaffolds, enforcing the dependency direction between layers.
"""

__version__ = "0.1.0"
