from . import config, mesh, resource

__all__ = ['config', 'mesh', 'resource']
