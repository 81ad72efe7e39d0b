# Copyright (c) 2021, Neil Booth
#
# All rights reserved.
#
# Licensed under the the Open BSV License version 3; see LICENCE for details.
#

'''Evaluation stacks with a limit on their combined element count.'''


from .errors import StackSizeTooLarge


class LimitedStack:
    '''A list of stack items.  A stack and the child stacks made from it share a limit on
    their combined element count; the alt stack is a child of the data stack.  Item sizes
    are not counted.'''

    def __init__(self, size_limit):
        self.size_limit = size_limit
        self._items = []
        # This stack and its children
        self._family = [self]

    def __len__(self):
        return len(self._items)

    def __getitem__(self, x):
        return self._items[x]

    def __setitem__(self, key, item):
        assert isinstance(key, int)  # Slice assignment could change the count
        self._items[key] = item

    def __eq__(self, other):
        if isinstance(other, LimitedStack):
            other = other._items
        return self._items == other

    def __repr__(self):
        return f'LimitedStack({[item.hex() for item in self._items]})'

    def combined_size(self):
        return sum(len(stack) for stack in self._family)

    def _require_room(self, count):
        if self.combined_size() + count > self.size_limit:
            raise StackSizeTooLarge(f'combined stack size exceeds the limit of '
                                    f'{self.size_limit:,d} items')

    def make_child_stack(self):
        child = LimitedStack(self.size_limit)
        child._family = self._family
        self._family.append(child)
        return child

    def make_copy(self):
        '''Return a detached copy of this stack's items for a later restore_copy().'''
        result = LimitedStack(self.size_limit)
        result._items = self._items.copy()
        return result

    def restore_copy(self, copy):
        '''Replace this stack's items with those of copy, which is left empty.'''
        self._items, copy._items = copy._items, []

    def items(self):
        '''A copy of the items as a list, bottom of stack first.'''
        return self._items.copy()

    def append(self, item):
        self._require_room(1)
        self._items.append(item)

    def insert(self, index, item):
        self._require_room(1)
        self._items.insert(index, item)

    def extend(self, items):
        '''Append all items, or none of them if they would exceed the limit.'''
        items = list(items)
        self._require_room(len(items))
        self._items.extend(items)

    def pop(self, index=-1):
        return self._items.pop(index)

    def clear(self):
        self._items.clear()
