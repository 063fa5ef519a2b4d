SCHEMA_SQL = r"""
-- Branches
CREATE TABLE IF NOT EXISTS branches (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  name TEXT NOT NULL UNIQUE,
  city TEXT,
  is_main_branch INTEGER NOT NULL DEFAULT 0,
  status TEXT NOT NULL DEFAULT 'active'      -- active / inactive / archived
);

-- Customers (owned by a branch)
CREATE TABLE IF NOT EXISTS customers (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  branch_id INTEGER NOT NULL,
  name TEXT NOT NULL,
  phone TEXT,
  status TEXT NOT NULL DEFAULT 'active',     -- active / inactive / archived
  FOREIGN KEY (branch_id) REFERENCES branches(id)
);

-- Suppliers
CREATE TABLE IF NOT EXISTS suppliers (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  branch_id INTEGER NOT NULL,
  name TEXT NOT NULL,
  phone TEXT,
  status TEXT NOT NULL DEFAULT 'active',
  FOREIGN KEY (branch_id) REFERENCES branches(id)
);

-- Products (money columns hold decimal strings, e.g. '120.50')
CREATE TABLE IF NOT EXISTS products (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  branch_id INTEGER NOT NULL,
  name TEXT NOT NULL,
  company TEXT,
  quantity INTEGER NOT NULL DEFAULT 0 CHECK (quantity >= 0),
  purchase_price TEXT NOT NULL DEFAULT '0.00',
  sale_price TEXT NOT NULL DEFAULT '0.00',
  status TEXT NOT NULL DEFAULT 'active',     -- active / in-active / out_of_stock / archived
  FOREIGN KEY (branch_id) REFERENCES branches(id)
);

-- Sales header
CREATE TABLE IF NOT EXISTS sales (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  customer_id INTEGER,                       -- NULL = walk-in
  branch_id INTEGER NOT NULL,
  user_id INTEGER,
  sale_date TEXT NOT NULL,                   -- ISO date
  discount TEXT NOT NULL DEFAULT '0.00',
  total_amount TEXT NOT NULL,
  paid_amount TEXT NOT NULL DEFAULT '0.00',
  profit TEXT NOT NULL DEFAULT '0.00',
  is_fully_paid INTEGER NOT NULL DEFAULT 0,
  status TEXT NOT NULL DEFAULT 'active',     -- active / completed / cancelled
  note TEXT,
  created_at TEXT NOT NULL,
  cancelled_at TEXT,
  FOREIGN KEY (customer_id) REFERENCES customers(id),
  FOREIGN KEY (branch_id) REFERENCES branches(id)
);

-- Sale lines (prices and cost snapshotted at sale time)
CREATE TABLE IF NOT EXISTS sale_items (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  sale_id INTEGER NOT NULL,
  product_id INTEGER NOT NULL,
  quantity INTEGER NOT NULL CHECK (quantity >= 1),
  unit_price TEXT NOT NULL,
  unit_cost TEXT NOT NULL DEFAULT '0.00',
  FOREIGN KEY (sale_id) REFERENCES sales(id) ON DELETE CASCADE,
  FOREIGN KEY (product_id) REFERENCES products(id)
);

-- Stock movements (arrival / dispatch / transfer_in / transfer_out / adjustment)
CREATE TABLE IF NOT EXISTS stock_movements (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  branch_id INTEGER NOT NULL,
  user_id INTEGER,
  product_id INTEGER NOT NULL,
  movement_type TEXT NOT NULL,
  supplier_id INTEGER,
  reference_branch_id INTEGER,
  quantity INTEGER NOT NULL,
  unit_price TEXT NOT NULL DEFAULT '0.00',
  total_amount TEXT NOT NULL DEFAULT '0.00',
  paid_amount TEXT NOT NULL DEFAULT '0.00',
  movement_date TEXT NOT NULL,
  notes TEXT,
  created_at TEXT NOT NULL,
  FOREIGN KEY (branch_id) REFERENCES branches(id),
  FOREIGN KEY (product_id) REFERENCES products(id),
  FOREIGN KEY (supplier_id) REFERENCES suppliers(id)
);

-- Dues (owed by / to a customer, supplier or branch)
CREATE TABLE IF NOT EXISTS dues (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  branch_id INTEGER NOT NULL,
  due_type TEXT NOT NULL,                    -- customer / supplier / branch
  owner_id INTEGER NOT NULL,
  category TEXT NOT NULL DEFAULT 'other',    -- sale / purchase / credit / transfer / other
  sale_id INTEGER,
  stock_movement_id INTEGER,
  total_amount TEXT NOT NULL,
  advance_paid TEXT NOT NULL DEFAULT '0.00',
  paid_amount TEXT NOT NULL DEFAULT '0.00',
  remaining_amount TEXT NOT NULL,
  status TEXT NOT NULL DEFAULT 'pending',    -- pending / partial / paid / overdue / cancelled
  due_date TEXT,
  description TEXT,
  created_at TEXT NOT NULL,
  FOREIGN KEY (branch_id) REFERENCES branches(id),
  FOREIGN KEY (sale_id) REFERENCES sales(id),
  FOREIGN KEY (stock_movement_id) REFERENCES stock_movements(id)
);

-- Payments against dues
CREATE TABLE IF NOT EXISTS payments (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  due_id INTEGER NOT NULL,
  branch_id INTEGER NOT NULL,
  user_id INTEGER,
  amount TEXT NOT NULL,
  payment_date TEXT NOT NULL,
  payment_method TEXT NOT NULL,              -- cash / bank_transfer / digital_wallet / cheque
  description TEXT NOT NULL,
  created_at TEXT NOT NULL,
  FOREIGN KEY (due_id) REFERENCES dues(id) ON DELETE CASCADE
);

CREATE INDEX IF NOT EXISTS idx_sale_items_sale ON sale_items(sale_id);
CREATE INDEX IF NOT EXISTS idx_dues_owner ON dues(due_type, owner_id);
CREATE INDEX IF NOT EXISTS idx_payments_due ON payments(due_id);
"""
