from contentproxy import (
    EditabilityError,
    ObjectProxy,
    ObservableList,
    ObservableObject,
    attribute,
    computed,
)

# ------------------------------------------------------------------------------------------------

print()
print("=" * 100)
print("Defining an observable object")
print("-" * 100)
print()


# Declared attributes get defaults; computed properties are cached until a dependency changes.
class Contact(ObservableObject):
    first = attribute("Alice")
    last = attribute("Smith")

    @computed("first", "last")
    def full_name(self):
        return f"{self.first} {self.last}"


alice = Contact()
bob = Contact(first="Bob", last="Jones")

alice.add_observer("full_name", lambda change: print(f"full_name is now: {alice.full_name}"))
alice.first = "Alicia"  # This will notify the observer

# ------------------------------------------------------------------------------------------------

print()
print("=" * 100)
print("Binding to a proxy")
print("-" * 100)
print()

# The controller stays put; its content is swapped underneath.
controller = ObjectProxy(content=alice)
controller.add_observer("full_name", lambda change: print(f"Controller shows: {controller.full_name}"))
print(f"Controller shows: {controller.full_name}")

controller.content = bob  # The observer re-reads full_name from the new content
controller.first = "Robert"  # Writes go through to bob
print(f"bob.first = {bob.first}")

# ------------------------------------------------------------------------------------------------

print()
print("=" * 100)
print("Following a selection")
print("-" * 100)
print()

selection = ObservableList([alice])
controller.content = selection
print(f"One selected: {controller.last}")

selection.append(bob)
print(f"Two selected, single mode: {controller.last}")

# Allow several elements: agreeing values collapse, disagreeing values fan out.
controller.allows_multiple_content = True
print(f"Two selected, multi mode: {controller.last}")

controller.last = "Doe"  # Set on every selected contact
print(f"After bulk edit: {controller.last}")

# ------------------------------------------------------------------------------------------------

print()
print("=" * 100)
print("Read-only controllers")
print("-" * 100)
print()

viewer = ObjectProxy(content=alice, is_editable=False)
try:
    viewer.first = "Mallory"
except EditabilityError as error:
    print(f"Refused: {error}")
