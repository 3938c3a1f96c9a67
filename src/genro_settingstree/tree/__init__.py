# Copyright 2025 Softwell S.r.l. - Genropy Team
# SPDX-License-Identifier: Apache-2.0

"""SettingsTree package - Ordered, typed, hierarchical settings container.

The package is organized into:
- core: The SettingsTree class with typed add/get accessors, sub-trees,
  key enumeration, copy and walk

Entries are SettingsEntry instances (see genro_settingstree.entry).

Example:
    >>> from genro_settingstree import SettingsTree
    >>> tree = SettingsTree('settings')
    >>> tree.add_subtree('model').add_double('threshold', 0.5)
    SettingsTree('model', ['threshold'])
    >>> tree.get_subtree('model').get_double('threshold')
    0.5
"""

from .core import SettingsTree

__all__ = ["SettingsTree"]
